# Infrastructure Adapters

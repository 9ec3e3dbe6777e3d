"""Configuration models and command line helpers of the driver."""

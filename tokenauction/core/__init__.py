"""Chain runtime, contracts, configuration and storage"""

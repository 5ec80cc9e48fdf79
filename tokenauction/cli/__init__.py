"""TokenAuction command line interface"""

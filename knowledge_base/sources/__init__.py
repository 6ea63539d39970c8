"""
Source adapters that turn URLs into DocumentUploads.
"""

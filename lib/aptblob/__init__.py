""" Maintain APT repositories in blob storage

aptblob keeps a Debian package repository (Release, Packages and Sources
indexes plus the package pool) in a bucket, adding binary and source
packages by rewriting the affected indexes and the Release file.
"""

__version__ = '0.1.0'

"""Provision clean VMware Fusion guests for GitLab custom executor jobs."""

__version__ = '0.1.0'

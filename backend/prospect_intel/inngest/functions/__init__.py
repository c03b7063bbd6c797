"""
Inngest Functions Registry.

This module exports all Inngest functions for registration with the serve endpoint.
"""

from .prospect_scan import process_prospect_scan_fn

# All functions to register with Inngest
all_functions = [
    process_prospect_scan_fn,
]

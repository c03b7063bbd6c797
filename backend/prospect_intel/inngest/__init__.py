"""
Inngest integration for background scan processing.

The client lives in ``prospect_intel.inngest.client`` and is only built when
an Inngest code path is actually used.
"""

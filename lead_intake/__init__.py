"""
Lead intake pipeline.

Turns inbound lead signals into deduplicated lead records:
- Watches an IMAP mailbox (IDLE push plus fallback poll)
- Keeps campaign replies out of this lane
- Extracts contact fields from free-text emails
- Validates bulk CSV uploads before import
"""

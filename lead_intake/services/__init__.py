"""Mailbox, memory and reconciliation services."""

"""Steward services: scheduler, conversation loop, chat, notifications.

Import from the submodules directly; the tool registry depends on
services.cron, so this package does not re-export anything.
"""

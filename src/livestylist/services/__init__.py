"""External services: subscription entitlements and post-session summaries."""

from livestylist.services.entitlements import EntitlementChecker
from livestylist.services.summary import SessionSummarizer, parse_summary

__all__ = ["EntitlementChecker", "SessionSummarizer", "parse_summary"]

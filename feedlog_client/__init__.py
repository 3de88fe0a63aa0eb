"""
Client for the feeding log API.

Keeps a locally cached, optimistically updated copy of the record list and
reconciles it with periodic server refreshes.
"""

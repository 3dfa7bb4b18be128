"""ChatForge generation orchestration core.

Turns a chat, image or research request into provider calls against
pooled credentials, persists the job, and serves it back for polling.
"""

__version__ = "0.3.0"

"""
Mastery tracking, spaced repetition and adaptive test sessions.

Components:
- storage: key-value + sorted index backends (memory, redis, SQL)
- mastery: per-concept mastery records, decay, SM-2 scheduling, propagation
- selection: adaptive choice of the next concept to test
- sessions: test session state machine, scoring, archival and summaries
- service: the calling layer wiring the above together
"""

__version__ = "1.0.0"

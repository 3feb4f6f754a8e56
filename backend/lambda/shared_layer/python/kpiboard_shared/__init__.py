"""kpiboard_shared — Shared library for the KPI board Lambda functions.

Provides:
    - Notion property extraction and record normalization
    - KPI → KPI detail → Project hierarchy building
    - Partial-update (patch) translation for client edits
    - Block content summarization
    - Notion transport, pagination, configuration and HTTP helpers
"""

__version__ = "1.0.0"

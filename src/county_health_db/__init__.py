"""
County Health Database

County-level population database and utilization regression models for
health workforce research: CDC PLACES, USDA RUCC, ACS 5-year tables and
the HRSA unmet need score joined into one row per county.

Core modules:
    - keys: County key canonicalization
    - field_maps: Declarative raw-column to attribute mappings
    - normalize: Per-source normalization to one row per county
    - join: Anchored left joins on the county key
    - metrics: Ratio and bucket metric catalog
    - outliers: z-score outlier filtering
    - models: OLS and quasi-Poisson fitting
    - stepwise: AIC forward/backward selection
    - reporting: Coefficient tables and the Markdown model report
    - sources: Remote fetchers and raw file readers
    - config: Typed YAML config loading
    - paths: Canonical root and path resolution
    - logging_utils: JSONL structured logging
    - io_utils: Atomic writes and I/O helpers
    - qa: Quality assurance checks
    - schemas: Schema validation for the database and model tables
    - hashing: File and config hashing for output provenance
"""

__version__ = "0.1.0"

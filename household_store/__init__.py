"""
Household Store - Persistence Lifecycle Engine

Keeps a couple's household data (tasks, shopping lists, inventory,
events) consistent in a hierarchical key-value store while partners
link and unlink, the schema evolves, and old data is backed up,
repaired and retired.

DESIGN PRINCIPLES:
1. Every multi-path change is one atomic update
2. Multi-step operations persist where they are, and can resume
3. Validate before writing, never after
4. Every public operation returns a Result
5. Storage backend is swappable
"""

__version__ = "1.0.0"
__author__ = "Household Store Team"

"""
CPU scheduling simulator package.

Admits jobs into a fixed memory budget and compares FCFS, Round Robin and
Priority scheduling over the admitted set.
"""

__all__ = ["cli"]

"""Execution layer: fee split, batching, packing, signing, operators."""

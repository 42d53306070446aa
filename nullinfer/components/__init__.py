"""Inference components: enumerator, bound types, resolver and evidence collector."""

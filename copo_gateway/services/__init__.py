"""
Services layer - signing, transaction store, orchestration and reconciliation
"""

"""
Per-event refmult correction and centrality

"""

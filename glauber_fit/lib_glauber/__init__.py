"""
Glauber/NBD fit to refmult and centrality definition

"""

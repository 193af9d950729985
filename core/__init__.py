"""core/ -- Configuration, domain models and the error taxonomy.

Layer rule: core/ is the kernel. It imports only stdlib + third-party
libraries and never imports from workflow/, client/, state/, or sandbox/.
"""

# Services package init
"""
NoteTree Backend — Services Layer
=================================

Service Inventory:
    - tree_ops: pure helpers over a forest (clone, clean positions, lookups,
      filters, search)
    - tree_store.NoteTreeStore: in-memory owner of one forest and its mutations
    - view_state.ExpansionState: expanded-node set for outline levels
    - hierarchy: forest ⇄ database rows
    - ProjectService: projects, trash, and whole-forest load/save
    - NoteService: per-project workspaces with write-through persistence

Only ProjectService and NoteService touch the database; everything below
them is synchronous and I/O free.
"""

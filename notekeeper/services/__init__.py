# Services package init
"""
NoteKeeper Backend — Services Layer
=====================================

Service Inventory:
    - BlobStore (abstract): interface to the external image store
    - LocalBlobStore: filesystem implementation (aiofiles)
    - CloudinaryBlobStore: Cloudinary implementation (cloudinary SDK)
    - NoteService: owner-scoped note CRUD and the image attachment lifecycle
"""

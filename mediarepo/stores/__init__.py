"""Database stores for media, metadata, thumbnails, URL previews, attributes and exports."""
# mediarepo

Building blocks for a media repository serving a Matrix homeserver: records
for media, thumbnails and URL previews, database stores for them, a
file-backed datastore, thumbnail sizing helpers and a few concurrency
utilities.

## What is inside

- `mediarepo.util` — identifier parsing (`split_mxc`, `split_user_id`),
  content-type cleanup (`fix_content_type`), hashing
  (`get_sha256_hash_of_stream`, `get_file_hash`, `get_sha1_of_string`),
  random ids (`generate_random_string`), animated PNG detection
  (`is_animated_png`), URL joining (`make_url`), access-token extraction
  (`get_access_token_from_request`, `get_log_safe_query_string`), stream
  cloning (`clone_reader`) and text decoding (`to_utf8`).
- `mediarepo.types` — dataclasses such as `Media`, `Thumbnail`, `Datastore`,
  `UrlPreview`, `CachedUrlPreview`, `BackgroundTask` and `LocalMedia`, plus
  `MediaRef` with `to_bytes()` / `media_ref_from_bytes()`.
- `mediarepo.stores` — `MediaStore`, `MetadataStore`, `ThumbnailStore`,
  `UrlStore`, `MediaAttributesStore` and `ExportStore`, each wrapping the
  queries for one group of tables over a DB-API connection. Lookups of a
  single record raise `RecordNotFound` (from `mediarepo.stores.media_store`)
  when nothing matches.
- `mediarepo.file_store` — writing uploads under a base directory while
  hashing them (`persist_file`, `persist_file_at_location`,
  `delete_persisted_file`).
- `mediarepo.datastores` — finding or registering a datastore by URI
  (`get_or_create_datastore_of_type`, `get_or_create_file_datastore`).
- `mediarepo.thumbnailing` — choosing thumbnail dimensions
  (`adjust_properties`), scaling or cropping a Pillow image
  (`make_thumbnail`) and applying EXIF orientation
  (`identify_and_apply_orientation`).
- `mediarepo.exif` — reading the EXIF orientation of an image
  (`get_exif_orientation`, `ExifOrientation`).
- `mediarepo.download_tracker` — `DownloadTracker`, a per-minute bucketed
  download counter.
- `mediarepo.singleflight` — `Group`, collapsing concurrent calls that share a
  key into a single call.
- `mediarepo.resource_handler` — `ResourceHandler`, a worker pool that shares
  results between callers asking for the same resource.
- `mediarepo.upload_notifier` — `wait_for_upload` / `notify_upload`.
- `mediarepo.synapse_db` — `SynapseDatabase`, reading the local media table
  of a Synapse database through an open DB-API connection.
- `mediarepo.audio_sampling` — `fast_sample_audio` for waveform previews.

## Examples

Splitting identifiers:

```python
from mediarepo.util import split_mxc, split_user_id, fix_content_type

origin, media_id = split_mxc("mxc://example.com/abc123")
localpart, domain = split_user_id("@alice:example.com")
content_type = fix_content_type("text/plain; charset=utf-8")  # "text/plain"
```

Invalid identifiers raise `ValueError`.

Building a media record:

```python
from mediarepo.types import Media

media = Media(origin="example.com", media_id="abc123")
print(media.mxc_uri())  # mxc://example.com/abc123
```

Registering a file datastore. The stores take any DB-API connection whose
placeholder style is `"qmark"` (the default) or `"format"`; the tables must
already exist:

```python
import sqlite3

from mediarepo.datastores import get_or_create_file_datastore
from mediarepo.stores.media_store import MediaStore

connection = sqlite3.connect(":memory:")
connection.execute("CREATE TABLE datastores (datastore_id TEXT, ds_type TEXT, uri TEXT)")
store = MediaStore(connection)
datastore = get_or_create_file_datastore(store, "/var/lib/media")
```

Storing an upload on disk:

```python
import io

from mediarepo.file_store import persist_file

info = persist_file("/var/lib/media", io.BytesIO(b"hello"))
print(info.location, info.sha256_hash, info.size_bytes)
```

Sharing one computation between concurrent callers:

```python
from mediarepo.singleflight import Group

group = Group()
value, callers = group.do_without_post("key", lambda: "result")
```

An exception raised by the function is raised to every caller sharing it.

Waiting for an upload that another thread is finishing. `notify_upload`
wakes only requests that are already waiting:

```python
from mediarepo.upload_notifier import wait_for_upload, notify_upload

# in the waiting thread:
arrived = wait_for_upload("example.com", "abc123", 5.0)

# in the uploading thread, once the file is stored:
notify_upload("example.com", "abc123")
```

## What it does not do

This package has no HTTP server, no command-line program and no
configuration loading. It does not create or migrate database tables; the
stores only run queries against tables that exist. The only datastore it
writes to is a local directory (`mediarepo.file_store`); there is no object
storage backend. It does not decode or encode image, audio or video
formats into thumbnails on its own: `mediarepo.thumbnailing` works on
Pillow images you have already opened, and `fast_sample_audio` works on an
audio stream object you supply.

## Requirements

Python 3.10 or later, with `pillow` for image handling and
`charset-normalizer` for detecting text encodings.
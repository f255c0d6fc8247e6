from __future__ import annotations

import argparse
import json

from identity_pool.core.events import redact
from identity_pool.core.pool.manager import IdentityPool
from identity_pool.core.stores.file_store import JsonFileStore


def main() -> None:
    ap = argparse.ArgumentParser(description="Print a stored identity pool (payloads redacted).")
    ap.add_argument("name", help="pool name (document field)")
    ap.add_argument("--store", default="runtime/identities.json", help="path of the JSON identity store")
    args = ap.parse_args()

    pool = IdentityPool(args.name, stored=True, store=JsonFileStore(path=args.store))
    try:
        pool.init()
        out = {
            "status": pool.status(),
            "identities": {k: redact(v.model_dump()) for k, v in pool.snapshot().items()},
        }
        print(json.dumps(out, indent=2, sort_keys=True, default=str))
    finally:
        pool.close()


if __name__ == "__main__":
    main()

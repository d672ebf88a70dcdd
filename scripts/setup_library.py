from __future__ import annotations

import shutil
from pathlib import Path

from fpanel.data.cache import cache_root
from fpanel.data.wrds_io import CACHE_FILES, WRDSClient, WRDSConfig
from fpanel.pipeline.run_panel_pipeline import DEFAULT_FILES


def main() -> None:
    wrds = WRDSClient(WRDSConfig(date_start="1980-01-01"))
    try:
        tables = wrds.pull_all()
    finally:
        wrds.close()
    for name, df in tables.items():
        print(f"{name}: {len(df)} rows")

    # Stage the pulls where the pipeline's main() looks for them
    out_dir = Path("data/cache")
    out_dir.mkdir(parents=True, exist_ok=True)
    for name, rel in CACHE_FILES.items():
        shutil.copyfile(cache_root() / rel, out_dir / DEFAULT_FILES[name])
    print(f"Copied WRDS extracts to {out_dir.resolve()}")


if __name__ == "__main__":
    main()

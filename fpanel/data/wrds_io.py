"""
Raw extracts from WRDS.

Each ``pull_*`` method runs one query through ``wrds.Connection`` and
stores the result in the local Parquet cache under ``v1/``, where
:func:`fpanel.pipeline.run_panel_pipeline.main` picks it up.  Queries
only select rows and columns; every cleaning rule lives in
:mod:`fpanel.prep` so that cached and in-memory inputs go through the
same code.
"""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Optional

import pandas as pd
import wrds  # WRDS-Py

from ..util.logging import get_logger
from .cache import save_parquet

log = get_logger("fpanel.wrds")

CACHE_FILES = {
    "funda": "v1/comp_funda.parquet",
    "dsf": "v1/crsp_dsf.parquet",
    "ccm": "v1/ccm_lnkhist.parquet",
    "iclink": "v1/ibes_iclink.parquet",
    "detail": "v1/ibes_detu.parquet",
    "actuals": "v1/ibes_actu.parquet",
}


@dataclass
class WRDSConfig:
    # pgpass is supported by wrds.Connection; otherwise it prompts
    schema_crsp: str = "crsp"
    schema_comp: str = "comp"
    schema_ibes: str = "ibes"
    schema_link: str = "wrdsapps"
    date_start: str = "1980-01-01"
    date_end: Optional[str] = None  # open-ended
    cache: Optional[Path] = None


class WRDSClient:
    def __init__(self, cfg: Optional[WRDSConfig] = None, conn=None):
        self.cfg = cfg or WRDSConfig()
        self.conn = conn if conn is not None else wrds.Connection()
        log.info("Connected to WRDS.")

    def _period(self, col: str) -> str:
        clause = f"{col} >= '{self.cfg.date_start}'"
        if self.cfg.date_end:
            clause += f" and {col} <= '{self.cfg.date_end}'"
        return clause

    def _run(self, name: str, q: str, date_cols) -> pd.DataFrame:
        log.info("Querying %s...", name)
        df = self.conn.raw_sql(q, date_cols=list(date_cols))
        log.info("%s rows: %d", name, len(df))
        save_parquet(df, CACHE_FILES[name], root=self.cfg.cache)
        return df

    def pull_compustat_annual(self) -> pd.DataFrame:
        q = f"""
        select gvkey, datadate, fyear, indfmt, datafmt, popsrc, consol,
               at, lt, seq, ceq, pstk, pstkrv, pstkl, mib,
               txditc, txdb, itcb, sale, revt, ib, prcc_f, csho
        from {self.cfg.schema_comp}.funda
        where {self._period("datadate")}
        """
        return self._run("funda", q, ["datadate"])

    def pull_crsp_daily(self) -> pd.DataFrame:
        q = f"""
        select a.permno, a.date, a.prc, a.shrout, a.cfacpr, a.cfacshr, b.shrcd
        from {self.cfg.schema_crsp}.dsf as a
        left join {self.cfg.schema_crsp}.msenames as b
          on a.permno = b.permno
         and a.date between b.namedt and b.nameendt
        where {self._period("a.date")}
        """
        return self._run("dsf", q, ["date"])

    def pull_ccm_links(self) -> pd.DataFrame:
        q = f"""
        select gvkey, lpermno, linktype, linkprim, linkdt, linkenddt
        from {self.cfg.schema_crsp}.ccmxpf_lnkhist
        where linktype in ('LC', 'LU', 'LX', 'LS')
        """
        return self._run("ccm", q, ["linkdt", "linkenddt"])

    def pull_ticker_links(self) -> pd.DataFrame:
        q = f"""
        select ticker, permno, score
        from {self.cfg.schema_link}.ibcrsphist
        """
        return self._run("iclink", q, [])

    def pull_ibes_detail(self) -> pd.DataFrame:
        q = f"""
        select ticker, cusip, fpedats, estimator, analys, anndats,
               value, pdf, measure, fpi
        from {self.cfg.schema_ibes}.detu_epsus
        where measure = 'EPS' and fpi = '1'
          and {self._period("anndats")}
        """
        return self._run("detail", q, ["fpedats", "anndats"])

    def pull_ibes_actuals(self) -> pd.DataFrame:
        q = f"""
        select ticker, pends, anndats, value, pdf, measure
        from {self.cfg.schema_ibes}.actu_epsus
        where measure = 'EPS' and pdicity = 'ANN'
          and {self._period("anndats")}
        """
        return self._run("actuals", q, ["pends", "anndats"])

    def pull_all(self) -> dict:
        return {
            "funda": self.pull_compustat_annual(),
            "dsf": self.pull_crsp_daily(),
            "ccm": self.pull_ccm_links(),
            "iclink": self.pull_ticker_links(),
            "detail": self.pull_ibes_detail(),
            "actuals": self.pull_ibes_actuals(),
        }

    def close(self) -> None:
        self.conn.close()

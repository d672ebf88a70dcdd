from __future__ import annotations

from pathlib import Path

import numpy as np
import pandas as pd

from fpanel.pipeline.run_panel_pipeline import DEFAULT_FILES


def main() -> None:
    out_dir = Path("data/cache")
    out_dir.mkdir(parents=True, exist_ok=True)

    rng = np.random.default_rng(7)
    n_firms = 20
    gvkeys = [f"{1000 + i:06d}" for i in range(n_firms)]
    permnos = list(range(10001, 10001 + n_firms))
    tickers = [f"T{i:03d}" for i in range(n_firms)]

    # --- Tiny FUNDA (no filing in 2001 for every third firm) ---
    rows = []
    for i, g in enumerate(gvkeys):
        for year in range(2000, 2004):
            if year == 2001 and i % 3 == 0:
                continue
            at = float(np.exp(rng.normal(7.0, 0.5)))
            lt = at * rng.uniform(0.3, 0.7)
            ceq = at - lt
            rows.append(
                {
                    "gvkey": g,
                    "datadate": pd.Timestamp(year, 12, 31),
                    "fyear": year,
                    "indfmt": "INDL",
                    "datafmt": "STD",
                    "popsrc": "D",
                    "consol": "C",
                    "at": at,
                    "lt": lt,
                    # seq missing for some firms so the fallback is exercised
                    "seq": np.nan if i % 4 == 0 else ceq,
                    "ceq": ceq,
                    "pstk": 0.0,
                    "pstkrv": np.nan,
                    "pstkl": np.nan,
                    "mib": 0.0,
                    "txditc": rng.uniform(0, 5),
                    "txdb": np.nan,
                    "itcb": np.nan,
                    "sale": at * rng.uniform(0.5, 1.5),
                    "revt": np.nan,
                    "ib": ceq * rng.normal(0.1, 0.05),
                    "prcc_f": rng.uniform(10, 60),
                    "csho": rng.uniform(5, 50),
                }
            )
    funda = pd.DataFrame(rows)

    # --- Tiny CRSP daily file; firm 0 splits 2-for-1 on 2002-06-03 ---
    days = pd.bdate_range("2000-01-03", "2004-06-30")
    idx = pd.MultiIndex.from_product([permnos, days], names=["permno", "date"])
    dsf = idx.to_frame(index=False)
    steps = rng.normal(0.0, 0.01, size=len(dsf))
    dsf["prc"] = 30.0 * np.exp(
        pd.Series(steps).groupby(dsf["permno"]).cumsum().to_numpy()
    )
    dsf["shrout"] = 10_000.0
    dsf["cfacpr"] = 1.0
    dsf["cfacshr"] = 1.0
    split = (dsf["permno"] == permnos[0]) & (dsf["date"] < pd.Timestamp("2002-06-03"))
    dsf.loc[split, ["cfacpr", "cfacshr"]] = 2.0
    dsf.loc[split, "prc"] *= 2.0
    dsf["shrcd"] = 10

    # --- CCM links (1:1, open-ended) ---
    ccm = pd.DataFrame(
        {
            "gvkey": gvkeys,
            "lpermno": permnos,
            "linktype": "LC",
            "linkprim": "P",
            "linkdt": pd.Timestamp("1990-01-01"),
            "linkenddt": pd.NaT,
        }
    )

    # --- Ticker links; one ambiguous ticker pointing at two PERMNOs ---
    iclink = pd.DataFrame({"ticker": tickers, "permno": permnos, "score": 1})
    extra = pd.DataFrame(
        {"ticker": ["AMBG", "AMBG"], "permno": permnos[:2], "score": [0, 1]}
    )
    iclink = pd.concat([iclink, extra], ignore_index=True)

    # --- IBES detail and actuals for fiscal years 2000-2003 ---
    fc_rows, act_rows = [], []
    for t in tickers + ["AMBG"]:
        for year in range(2000, 2004):
            fpe = pd.Timestamp(year, 12, 31)
            eps = rng.normal(2.0, 0.5)
            act_rows.append(
                {
                    "ticker": t,
                    "pends": fpe,
                    "anndats": pd.Timestamp(year + 1, 2, 15),
                    "value": eps,
                    "pdf": "D",
                    "measure": "EPS",
                }
            )
            for analyst in range(1, 4):
                for month in (6, 10):
                    fc_rows.append(
                        {
                            "ticker": t,
                            "fpedats": fpe,
                            "estimator": 100 + analyst,
                            "analys": 9000 + analyst,
                            "anndats": pd.Timestamp(year, month, 10 + analyst),
                            "value": eps + rng.normal(0, 0.2),
                            "pdf": "D",
                            "measure": "EPS",
                            "fpi": "1",
                        }
                    )
    detail = pd.DataFrame(fc_rows)
    actuals = pd.DataFrame(act_rows)

    tables = {
        "funda": funda,
        "dsf": dsf,
        "ccm": ccm,
        "iclink": iclink,
        "detail": detail,
        "actuals": actuals,
    }
    for name, df in tables.items():
        path = out_dir / DEFAULT_FILES[name]
        path.unlink(missing_ok=True)
        df.to_parquet(path, index=False)

    print(f"Wrote tiny cache to {out_dir.resolve()}")


if __name__ == "__main__":
    main()

import gzip
import logging
from io import StringIO
from pathlib import Path
from typing import Optional, Union

import pandas as pd
import polars as pl

from batchmap.genobj.outcrossobj import OutcrossObject
from batchmap.twopt.io.base import TwoPointBaseReader
from batchmap.twopt.table import TWOPT_COLUMNS, TwoPointTable


log = logging.getLogger(__name__)

_SCHEMA = {
    'marker_1': pl.Int64,
    'marker_2': pl.Int64,
    'phase': pl.Int8,
    'rf': pl.Float64,
    'lod': pl.Float64,
}


class TwoPointReader(TwoPointBaseReader):
    """
    Reads a delimited two-point table into a `TwoPointTable`.

    The file has a header with the columns `marker_1`, `marker_2`, `phase`,
    `rf` and `lod` (extra columns are ignored), one row per candidate phase of
    a marker pair. Marker columns hold 0-based marker indices.
    """

    def read(
        self,
        separator: str = '\t',
        n_markers: Optional[int] = None,
        data: Optional[OutcrossObject] = None,
    ) -> TwoPointTable:
        """
        Read the two-point table.

        Args:
            separator (str): Field delimiter.
            n_markers (int, optional): Number of markers. Inferred from `data` or the file if omitted.
            data (OutcrossObject, optional): Dataset the table was computed from.

        Returns:
            **TwoPointTable**: The parsed table.
        """
        log.info(f"Reading {self.file}")

        if str(self.file).endswith('.gz'):
            with gzip.open(self.file, 'rt') as f:
                source = StringIO(f.read())
        else:
            source = str(self.file)

        df = pl.read_csv(
            source=source,
            has_header=True,
            separator=separator,
        )
        missing = [c for c in TWOPT_COLUMNS if c not in df.columns]
        if missing:
            raise ValueError(f"{self.file} is missing columns: {', '.join(missing)}.")
        df = df.select([pl.col(c).cast(dtype) for c, dtype in _SCHEMA.items()])

        frame = pd.DataFrame({c: df[c].to_numpy() for c in TWOPT_COLUMNS})
        table = TwoPointTable.from_frame(frame, n_markers=n_markers, data=data)

        log.info(f"Finished reading {self.file}")

        return table


def read_twopt(file: Union[str, Path], **kwargs) -> TwoPointTable:
    """
    Read a two-point table file into a `TwoPointTable`.

    Args:
        file (str or pathlib.Path): Path to the file to be read.
        **kwargs: Additional arguments passed to `TwoPointReader.read`.
    """
    return TwoPointReader(file).read(**kwargs)

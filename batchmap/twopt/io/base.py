import abc
from pathlib import Path
from typing import Union

from batchmap.twopt.table import TwoPointTable


class TwoPointBaseReader(abc.ABC):
    """
    Abstract class for two-point table readers.
    """

    def __init__(self, file: Union[str, Path]) -> None:
        """
        Args:
            file (str or pathlib.Path): Path to the two-point table to read.
        """
        self.__file = Path(file)

    @property
    def file(self) -> Path:
        """
        Retrieve `file`.

        Returns:
            pathlib.Path: Path to the two-point table to read.
        """
        return self.__file

    @abc.abstractmethod
    def read(self) -> TwoPointTable:
        """
        Abstract method to read data from the provided `file` and construct a `TwoPointTable`.
        """
        pass

"""
Row-distributed dense matrices for SPMD execution.

Every rank stores only the rows it owns. Collective operations (norms,
max-location searches, batched row pulls) go through an mpi4py-style
communicator, so ``mpi4py.MPI.COMM_WORLD`` can be passed wherever a
``comm`` argument is accepted. Without MPI the default ``SerialComm``
keeps every row on a single rank.
"""

import numpy as np
from typing import List, Optional, Sequence, Tuple

from rbf_coarsening.exceptions import DistributionError


class SerialComm:
    """Single-rank communicator exposing the mpi4py object interface."""

    def Get_rank(self) -> int:
        return 0

    def Get_size(self) -> int:
        return 1

    def allgather(self, obj) -> List:
        return [obj]

    def alltoall(self, objs: Sequence) -> List:
        if len(objs) != 1:
            raise DistributionError(
                f"alltoall on a single rank expects 1 message, got {len(objs)}"
            )
        return list(objs)

    def bcast(self, obj, root: int = 0):
        return obj


def block_owners(n_rows: int, n_ranks: int) -> np.ndarray:
    """
    Contiguous block partition of rows over ranks.

    Leading ranks receive one extra row when the rows do not divide
    evenly, the same split as ``np.array_split``.

    :param n_rows: Number of global rows
    :param n_ranks: Number of ranks in the communicator
    :return: Owner rank of every row, shape (n_rows,)
    """
    owners = np.empty(n_rows, dtype=int)
    for rank, rows in enumerate(np.array_split(np.arange(n_rows), n_ranks)):
        owners[rows] = rank
    return owners


class DistributedMatrix:
    """
    Dense matrix whose rows are distributed over the ranks of a communicator.

    Attributes
    ----------
    comm : communicator
        mpi4py-style communicator (``SerialComm`` by default)
    height, width : int
        Global shape
    owners : np.ndarray
        Owner rank of every global row, replicated on all ranks
    local_rows : np.ndarray
        Sorted global indices of the rows owned by this rank
    local : np.ndarray
        Values of the owned rows, shape (len(local_rows), width)
    """

    def __init__(
        self,
        height: int,
        width: int,
        comm=None,
        owners: Optional[np.ndarray] = None,
        local: Optional[np.ndarray] = None
    ):
        self.comm = comm if comm is not None else SerialComm()
        self.rank = self.comm.Get_rank()
        self.n_ranks = self.comm.Get_size()
        self.height = int(height)
        self.width = int(width)

        if owners is None:
            owners = block_owners(self.height, self.n_ranks)
        owners = np.asarray(owners, dtype=int)

        if owners.shape != (self.height,):
            raise DistributionError(
                f"Expected {self.height} row owners, got shape {owners.shape}"
            )
        if self.height > 0 and (owners.min() < 0 or owners.max() >= self.n_ranks):
            raise DistributionError(
                f"Row owners must lie in [0, {self.n_ranks}), "
                f"got range [{owners.min()}, {owners.max()}]"
            )

        self.owners = owners
        self.local_rows = np.flatnonzero(owners == self.rank)

        if local is None:
            local = np.zeros((len(self.local_rows), self.width))
        else:
            local = np.asarray(local, dtype=float)
            if local.shape != (len(self.local_rows), self.width):
                raise DistributionError(
                    f"Rank {self.rank} owns {len(self.local_rows)} rows of width "
                    f"{self.width}, got local block of shape {local.shape}"
                )
        self.local = local

        self._pulls = None
        self._reserved = 0

    @classmethod
    def zeros(
        cls,
        height: int,
        width: int,
        comm=None,
        owners: Optional[np.ndarray] = None
    ) -> "DistributedMatrix":
        return cls(height, width, comm=comm, owners=owners)

    @classmethod
    def from_global(
        cls,
        array: np.ndarray,
        comm=None,
        owners: Optional[np.ndarray] = None
    ) -> "DistributedMatrix":
        """
        Distribute a replicated array; each rank keeps the rows it owns.

        :param array: Full array, identical on every rank. 1D input is
            treated as a single column.
        :param comm: Communicator
        :param owners: Row owners, block partition if omitted
        :return: Distributed matrix
        """
        array = np.asarray(array, dtype=float)
        if array.ndim == 1:
            array = array[:, np.newaxis]
        if array.ndim != 2:
            raise DistributionError(f"Expected a 1D or 2D array, got shape {array.shape}")

        matrix = cls(array.shape[0], array.shape[1], comm=comm, owners=owners)
        matrix.local = array[matrix.local_rows].copy()
        return matrix

    @property
    def shape(self) -> Tuple[int, int]:
        return (self.height, self.width)

    def __repr__(self) -> str:
        return (
            f"DistributedMatrix(shape={self.shape}, rank={self.rank}/{self.n_ranks}, "
            f"local_rows={len(self.local_rows)})"
        )

    def aligned_with(
        self,
        height: Optional[int] = None,
        width: Optional[int] = None
    ) -> "DistributedMatrix":
        """
        Zero matrix on the same communicator.

        Keeps this matrix's row owners when the height is unchanged and
        falls back to a block partition otherwise.
        """
        height = self.height if height is None else height
        width = self.width if width is None else width
        owners = self.owners if height == self.height else None
        return DistributedMatrix.zeros(height, width, comm=self.comm, owners=owners)

    def copy(self) -> "DistributedMatrix":
        return DistributedMatrix(
            self.height, self.width, comm=self.comm,
            owners=self.owners, local=self.local.copy()
        )

    def owner(self, row: int) -> int:
        """Rank owning a global row."""
        if not 0 <= row < self.height:
            raise DistributionError(f"Row {row} out of range for height {self.height}")
        return int(self.owners[row])

    def is_aligned(self, other: "DistributedMatrix") -> bool:
        return self.height == other.height and np.array_equal(self.owners, other.owners)

    def local_index(self, rows) -> np.ndarray:
        """Positions of owned global rows inside ``self.local``."""
        rows = np.asarray(rows, dtype=int)
        if rows.size and np.any(self.owners[rows] != self.rank):
            raise DistributionError(f"Rank {self.rank} does not own all requested rows")
        return np.searchsorted(self.local_rows, rows)

    def set_rows(self, rows, values: np.ndarray) -> None:
        """Overwrite owned rows with ``values`` (one row of values per row index)."""
        self.local[self.local_index(rows)] = values

    def to_global(self) -> np.ndarray:
        """Gather the full matrix on every rank. Collective."""
        blocks = self.comm.allgather((self.local_rows, self.local))
        full = np.zeros((self.height, self.width))
        for rows, values in blocks:
            full[rows] = values
        return full

    def get_row(self, row: int) -> np.ndarray:
        """Broadcast one global row from its owner to every rank. Collective."""
        owner = self.owner(row)
        values = None
        if owner == self.rank:
            values = self.local[self.local_index([row])[0]].copy()
        return np.array(self.comm.bcast(values, root=owner), dtype=float)

    def row_norms(self) -> "DistributedMatrix":
        """Euclidean norm of every row, as a column distributed like this matrix."""
        norms = np.linalg.norm(self.local, axis=1)[:, np.newaxis]
        return DistributedMatrix(
            self.height, 1, comm=self.comm, owners=self.owners, local=norms
        )

    def axpy(self, alpha: float, x: "DistributedMatrix") -> "DistributedMatrix":
        """In-place ``self += alpha * x``; both operands must share row owners."""
        if not self.is_aligned(x) or self.width != x.width:
            raise DistributionError(
                f"axpy needs aligned operands, got {self.shape} and {x.shape}"
            )
        self.local += alpha * x.local
        return self

    def max_abs(self) -> float:
        """Largest absolute entry over all ranks. Collective."""
        local_max = float(np.max(np.abs(self.local))) if self.local.size else 0.0
        return max(self.comm.allgather(local_max))

    def max_abs_loc(self, exclude: Optional[Sequence[int]] = None) -> Tuple[int, float]:
        """
        Row holding the largest absolute entry, over all ranks. Collective.

        Ties resolve to the lowest global row, so every rank agrees on the
        result regardless of how rows are distributed.

        :param exclude: Global rows to leave out of the search
        :return: (row, value) with value the absolute entry found
        """
        candidate = None
        if self.local.size:
            magnitudes = np.max(np.abs(self.local), axis=1)
            mask = np.ones(len(self.local_rows), dtype=bool)
            if exclude is not None and len(exclude):
                mask &= ~np.isin(self.local_rows, np.asarray(exclude, dtype=int))
            if np.any(mask):
                masked = np.where(mask, magnitudes, -np.inf)
                # argmax returns the first maximum, local_rows is sorted
                best = int(np.argmax(masked))
                candidate = (float(masked[best]), int(self.local_rows[best]))

        candidates = [c for c in self.comm.allgather(candidate) if c is not None]
        if not candidates:
            raise DistributionError("No rows left to search for a maximum")

        value, row = min(candidates, key=lambda c: (-c[0], c[1]))
        return row, value

    def reserve_pulls(self, n_pulls: int) -> None:
        """Start a batch of remote row pulls of the given size."""
        self._pulls = []
        self._reserved = int(n_pulls)

    def queue_pull(self, row: int) -> None:
        """Queue a request for one global row, owned by any rank."""
        if self._pulls is None:
            raise DistributionError("reserve_pulls() must be called before queue_pull()")
        if len(self._pulls) >= self._reserved:
            raise DistributionError(f"More than {self._reserved} pulls queued")
        self.owner(row)
        self._pulls.append(int(row))

    def process_pull_queue(self) -> np.ndarray:
        """
        Exchange all queued row requests in one batch. Collective.

        Every rank must call this, including ranks that queued nothing,
        since they may own rows requested by others.

        :return: Pulled rows in queue order, shape (n_pulls, width)
        """
        if self._pulls is None:
            raise DistributionError("reserve_pulls() must be called before process_pull_queue()")
        if len(self._pulls) != self._reserved:
            raise DistributionError(
                f"Reserved {self._reserved} pulls but queued {len(self._pulls)}"
            )

        queue = self._pulls
        self._pulls = None

        requests = [[] for _ in range(self.n_ranks)]
        for row in queue:
            requests[self.owners[row]].append(row)

        incoming = self.comm.alltoall(requests)
        replies = [self.local[self.local_index(rows)] for rows in incoming]
        received = self.comm.alltoall(replies)

        buffer = np.empty((len(queue), self.width))
        cursor = [0] * self.n_ranks
        for k, row in enumerate(queue):
            source = self.owners[row]
            buffer[k] = received[source][cursor[source]]
            cursor[source] += 1

        return buffer


def as_distributed(
    data,
    comm=None,
    like: Optional[DistributedMatrix] = None
) -> DistributedMatrix:
    """
    Wrap a replicated array as a distributed matrix; matrices pass through.

    :param data: ``DistributedMatrix`` or array-like, identical on every rank
    :param comm: Communicator used for arrays
    :param like: Matrix whose row owners are reused when the heights match
    :return: Distributed matrix
    """
    if isinstance(data, DistributedMatrix):
        return data

    array = np.asarray(data, dtype=float)
    if array.ndim == 1:
        array = array[:, np.newaxis]

    owners = None
    if like is not None and array.shape[0] == like.height:
        owners = like.owners
    return DistributedMatrix.from_global(array, comm=comm, owners=owners)

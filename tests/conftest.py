"""
Shared fixtures.

ThreadComm mimics the mpi4py lowercase communicator interface with one
thread per rank, so SPMD code paths can be exercised without MPI.
"""

import threading

import pytest


class _Exchange:
    def __init__(self, size):
        self.size = size
        self.slots = [None] * size
        self.barrier = threading.Barrier(size, timeout=60)


class ThreadComm:
    def __init__(self, rank, exchange):
        self.rank = rank
        self.exchange = exchange

    def Get_rank(self):
        return self.rank

    def Get_size(self):
        return self.exchange.size

    def allgather(self, obj):
        self.exchange.slots[self.rank] = obj
        self.exchange.barrier.wait()
        result = list(self.exchange.slots)
        self.exchange.barrier.wait()
        return result

    def alltoall(self, objs):
        assert len(objs) == self.exchange.size
        gathered = self.allgather(list(objs))
        return [gathered[source][self.rank] for source in range(self.exchange.size)]

    def bcast(self, obj, root=0):
        return self.allgather(obj)[root]


def run_spmd(n_ranks, func, *args):
    """Run func(comm, *args) on n_ranks threads and return the per-rank results."""
    exchange = _Exchange(n_ranks)
    results = [None] * n_ranks
    errors = []

    def worker(rank):
        try:
            results[rank] = func(ThreadComm(rank, exchange), *args)
        except threading.BrokenBarrierError as e:
            errors.append((1, e))
        except Exception as e:
            errors.append((0, e))
            exchange.barrier.abort()

    threads = [threading.Thread(target=worker, args=(rank,)) for rank in range(n_ranks)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()

    if errors:
        raise sorted(errors, key=lambda e: e[0])[0][1]
    return results


@pytest.fixture
def spmd():
    """Fixture giving access to run_spmd."""
    return run_spmd

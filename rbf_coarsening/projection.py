"""
Row projection of distributed matrices onto a list of selected indices.

The destination rows may live on a different rank than the source rows
they copy, so each rank pulls exactly the rows it owns in the destination
with one batched exchange.
"""

from typing import Sequence

from rbf_coarsening.distributed import DistributedMatrix
from rbf_coarsening.exceptions import SelectionError


def select_data(
    data: DistributedMatrix,
    indices: Sequence[int],
    selection: DistributedMatrix
) -> DistributedMatrix:
    """
    Fill ``selection`` so that its row j equals row ``indices[j]`` of ``data``.

    Collective: every rank of the communicator must call it with the same
    indices.

    :param data: Full distributed matrix (positions or values)
    :param indices: Selected global rows of ``data``, in selection order
    :param selection: Destination of shape (len(indices), data.width)
    :return: ``selection``
    """
    if selection.height != len(indices):
        raise SelectionError(
            f"Selection buffer has {selection.height} rows for {len(indices)} selected indices"
        )
    if selection.width != data.width:
        raise SelectionError(
            f"Selection buffer has width {selection.width}, data has width {data.width}"
        )

    owned = [j for j in range(len(indices)) if selection.owner(j) == selection.rank]

    data.reserve_pulls(len(owned))
    for j in owned:
        data.queue_pull(indices[j])
    buffer = data.process_pull_queue()

    if owned:
        selection.set_rows(owned, buffer)

    return selection


def project(data: DistributedMatrix, indices: Sequence[int]) -> DistributedMatrix:
    """
    Reduced copy of ``data`` holding only the selected rows.

    :param data: Full distributed matrix
    :param indices: Selected global rows
    :return: New matrix of shape (len(indices), data.width)
    """
    selection = data.aligned_with(height=len(indices))
    return select_data(data, indices, selection)

from typing import Sequence

from mdchunk.models.chunk import Chunk, ChunkDiff

def diff_chunks(old: Sequence[Chunk], new: Sequence[Chunk]) -> ChunkDiff:
    """Positional comparison of two segmentation passes."""
    diff = ChunkDiff()
    for index, chunk in enumerate(new):
        if index < len(old) and old[index] == chunk:
            diff.unchanged.append(index)
        else:
            diff.changed.append(index)
    diff.removed = list(range(len(new), len(old)))
    return diff

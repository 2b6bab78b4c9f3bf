"""
Filesystem abstraction

The chart writer and the values parser only talk to the disk through these
classes, so tests can run against an in-memory tree.
"""
from pathlib import Path, PurePosixPath
from typing import Dict, List, Set, Union

PathLike = Union[str, Path]


class Filesystem:
    """Interface: read/write/makedirs/listdir/exists"""

    def read_text(self, path: PathLike) -> str:
        raise NotImplementedError

    def write_text(self, path: PathLike, content: str) -> None:
        raise NotImplementedError

    def makedirs(self, path: PathLike) -> None:
        raise NotImplementedError

    def listdir(self, path: PathLike) -> List[str]:
        raise NotImplementedError

    def exists(self, path: PathLike) -> bool:
        raise NotImplementedError


class LocalFilesystem(Filesystem):

    def read_text(self, path: PathLike) -> str:
        with open(path, 'r') as f:
            return f.read()

    def write_text(self, path: PathLike, content: str) -> None:
        with open(path, 'w') as f:
            f.write(content)

    def makedirs(self, path: PathLike) -> None:
        Path(path).mkdir(parents=True, exist_ok=True)

    def listdir(self, path: PathLike) -> List[str]:
        return sorted(p.name for p in Path(path).iterdir())

    def exists(self, path: PathLike) -> bool:
        return Path(path).exists()


class MemoryFilesystem(Filesystem):
    """Dict-backed filesystem keyed by POSIX path strings"""

    def __init__(self):
        self.files: Dict[str, str] = {}
        self.dirs: Set[str] = {'/'}

    @staticmethod
    def _key(path: PathLike) -> str:
        return str(PurePosixPath(str(path)))

    def read_text(self, path: PathLike) -> str:
        key = self._key(path)
        if key not in self.files:
            raise FileNotFoundError(key)
        return self.files[key]

    def write_text(self, path: PathLike, content: str) -> None:
        key = self._key(path)
        parent = str(PurePosixPath(key).parent)
        if parent not in self.dirs and parent != '.':
            raise FileNotFoundError(f"No such directory: '{parent}'")
        self.files[key] = content

    def makedirs(self, path: PathLike) -> None:
        current = PurePosixPath(self._key(path))
        for directory in [current] + list(current.parents):
            self.dirs.add(str(directory))

    def listdir(self, path: PathLike) -> List[str]:
        key = self._key(path)
        if key not in self.dirs:
            raise FileNotFoundError(key)
        entries = set()
        for candidate in list(self.files) + list(self.dirs):
            candidate_path = PurePosixPath(candidate)
            if candidate != key and str(candidate_path.parent) == key:
                entries.add(candidate_path.name)
        return sorted(entries)

    def exists(self, path: PathLike) -> bool:
        key = self._key(path)
        return key in self.files or key in self.dirs

"""
Document Protection Stage

Flattens interactive form fields into static page content, then hands the
document to an encryption backend. The qpdf backend runs the external tool as
an async subprocess against uniquely named scratch files that are removed on
every exit path.
"""

from abc import ABC, abstractmethod
from contextlib import asynccontextmanager
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import AsyncIterator, Callable, List, Optional, Tuple
import asyncio
import io
import os
import secrets
import tempfile

import aiofiles
import aiofiles.os
from pypdf import PdfReader, PdfWriter
from pypdf.generic import (
    ArrayObject,
    DecodedStreamObject,
    DictionaryObject,
    IndirectObject,
    NameObject,
    StreamObject,
)

from app.core.exceptions import (
    ProtectionError,
    ProtectionTimeoutError,
    ProtectionToolMissingError,
)
from app.core.logging_config import logger


# qpdf exits with 3 when it succeeded but emitted warnings
QPDF_SUCCESS_CODES = (0, 3)
SUPPORTED_KEY_LENGTHS = (128, 256)

# Annotation flag bit for hidden widgets
_HIDDEN_FLAG = 2


class ProtectionState(str, Enum):
    UNPROTECTED = "unprotected"
    FLATTENED = "flattened"
    ENCRYPTED = "encrypted"


def generate_owner_password() -> str:
    return secrets.token_urlsafe(24)


# ============================================
# Flattening
# ============================================

def _normal_appearance(annotation: DictionaryObject):
    """Indirect reference to the widget's normal appearance stream, if any"""
    appearance = annotation.get("/AP")
    if appearance is None:
        return None
    appearance = appearance.get_object()
    if "/N" not in appearance:
        return None

    normal_ref = appearance.raw_get("/N")
    normal = normal_ref.get_object()
    if isinstance(normal, StreamObject):
        return normal_ref

    # Checkboxes and radios keep one stream per state; /AS selects it
    state = annotation.get("/AS")
    if isinstance(normal, DictionaryObject) and state is not None and state in normal:
        state_ref = normal.raw_get(state)
        if isinstance(state_ref.get_object(), StreamObject):
            return state_ref
    return None


def _placement(stream: StreamObject, rect) -> Tuple[float, float]:
    x1, y1 = float(rect[0]), float(rect[1])
    bbox = stream.get("/BBox")
    if bbox is not None:
        x1 -= float(bbox[0])
        y1 -= float(bbox[1])
    return x1, y1


def _append_content(writer: PdfWriter, page, prefix: bytes, suffix: bytes) -> None:
    def stream_of(data: bytes):
        stream = DecodedStreamObject()
        stream.set_data(data)
        return writer._add_object(stream)

    parts: List = []
    if "/Contents" in page:
        contents_ref = page.raw_get("/Contents")
        contents = contents_ref.get_object()
        parts = list(contents) if isinstance(contents, ArrayObject) else [contents_ref]

    page[NameObject("/Contents")] = ArrayObject([stream_of(prefix), *parts, stream_of(suffix)])


def flatten_form_fields(content: bytes) -> bytes:
    """
    Paint every form widget's appearance into its page and drop the form.

    Documents without an AcroForm are returned unchanged.
    """
    reader = PdfReader(io.BytesIO(content))
    if "/AcroForm" not in reader.trailer["/Root"]:
        return content

    writer = PdfWriter(clone_from=reader)
    flattened = 0

    for page in writer.pages:
        if "/Annots" not in page:
            continue

        kept = ArrayObject()
        placements: List[str] = []
        resources = page.get("/Resources")
        resources = resources.get_object() if resources is not None else DictionaryObject()
        xobjects = resources.get("/XObject")
        xobjects = xobjects.get_object() if xobjects is not None else DictionaryObject()

        for annotation_ref in page["/Annots"]:
            annotation = annotation_ref.get_object()
            if annotation.get("/Subtype") != "/Widget":
                kept.append(annotation_ref)
                continue
            if int(annotation.get("/F", 0)) & _HIDDEN_FLAG:
                continue

            normal_ref = _normal_appearance(annotation)
            if normal_ref is None:
                continue

            if not isinstance(normal_ref, IndirectObject):
                normal_ref = writer._add_object(normal_ref)

            name = f"/FlatField{len(placements)}"
            xobjects[NameObject(name)] = normal_ref
            x, y = _placement(normal_ref.get_object(), annotation["/Rect"])
            placements.append(f"q 1 0 0 1 {x:.4f} {y:.4f} cm {name} Do Q")
            flattened += 1

        if placements:
            resources[NameObject("/XObject")] = xobjects
            page[NameObject("/Resources")] = resources
            _append_content(writer, page, b"q\n", ("\nQ\n" + "\n".join(placements) + "\n").encode("ascii"))

        if kept:
            page[NameObject("/Annots")] = kept
        else:
            del page["/Annots"]

    del writer.root_object["/AcroForm"]

    output = io.BytesIO()
    writer.write(output)
    logger.debug(f"[Protection] Flattened {flattened} form field(s)")
    return output.getvalue()


# ============================================
# Backends
# ============================================

class ProtectionBackend(ABC):
    """Applies access restrictions to finished document bytes"""

    # Whether output of this backend counts as secured
    secures: bool = True

    @abstractmethod
    async def protect(self, content: bytes, password: str) -> bytes:
        ...


class NoopProtectionBackend(ProtectionBackend):
    """Pass-through backend for disabled protection and tests"""

    secures = False

    async def protect(self, content: bytes, password: str) -> bytes:
        return content


@asynccontextmanager
async def scratch_files(directory: Path) -> AsyncIterator[Tuple[Path, Path]]:
    """Unique input/output paths for one encryption run, removed on exit"""
    token = secrets.token_hex(8)
    input_path = directory / f"letter-{token}-in.pdf"
    output_path = directory / f"letter-{token}-out.pdf"
    try:
        yield input_path, output_path
    finally:
        for path in (input_path, output_path):
            try:
                await aiofiles.os.remove(path)
            except FileNotFoundError:
                pass
            except OSError as e:
                logger.warning(f"[Protection] Could not remove scratch file {path}: {e}")


class QpdfProtectionBackend(ProtectionBackend):
    """Encrypts with the external qpdf command-line tool"""

    def __init__(
        self,
        binary: str = "qpdf",
        lib_dir: str = "",
        timeout_seconds: float = 30.0,
        temp_dir: str = "",
        key_length: int = 256,
    ):
        if key_length not in SUPPORTED_KEY_LENGTHS:
            raise ValueError(f"Unsupported key length {key_length}; expected one of {SUPPORTED_KEY_LENGTHS}")
        self.binary = binary
        self.lib_dir = lib_dir
        self.timeout_seconds = timeout_seconds
        self.temp_dir = Path(temp_dir) if temp_dir else Path(tempfile.gettempdir())
        self.key_length = key_length

    def build_command(self, input_path: Path, output_path: Path, password: str) -> List[str]:
        command = [
            self.binary,
            str(input_path),
            "--encrypt", "", password, str(self.key_length),
            "--print=full",
            "--modify=none",
            "--extract=n",
            "--cleartext-metadata",
        ]
        if self.key_length == 128:
            command.append("--use-aes=y")
        command.extend(["--", str(output_path)])
        return command

    def build_environment(self) -> dict:
        env = os.environ.copy()
        if self.lib_dir:
            existing = env.get("LD_LIBRARY_PATH")
            env["LD_LIBRARY_PATH"] = os.pathsep.join(p for p in (self.lib_dir, existing) if p)
        return env

    @staticmethod
    def _kill(process: asyncio.subprocess.Process) -> None:
        if process.returncode is None:
            try:
                process.kill()
            except ProcessLookupError:
                pass

    async def _run(self, command: List[str]) -> Tuple[int, bytes]:
        try:
            process = await asyncio.create_subprocess_exec(
                *command,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
                env=self.build_environment(),
            )
        except FileNotFoundError as e:
            raise ProtectionToolMissingError(self.binary) from e
        except PermissionError as e:
            raise ProtectionError(f"Encryption tool '{self.binary}' is not executable") from e

        try:
            _, stderr = await asyncio.wait_for(process.communicate(), timeout=self.timeout_seconds)
        except asyncio.TimeoutError as e:
            self._kill(process)
            await process.wait()
            raise ProtectionTimeoutError(self.timeout_seconds) from e
        except asyncio.CancelledError:
            self._kill(process)
            # Reap the child so no zombie outlives the request
            await asyncio.shield(process.wait())
            raise

        return process.returncode, stderr or b""

    async def protect(self, content: bytes, password: str) -> bytes:
        async with scratch_files(self.temp_dir) as (input_path, output_path):
            try:
                async with aiofiles.open(input_path, "wb") as f:
                    await f.write(content)
            except OSError as e:
                logger.error(f"[Protection] Could not write scratch file {input_path}: {e}")
                raise ProtectionError(f"Could not write scratch file: {e.strerror or e}") from e

            returncode, stderr = await self._run(self.build_command(input_path, output_path, password))
            message = stderr.decode("utf-8", errors="replace").strip()[:500]

            if returncode not in QPDF_SUCCESS_CODES:
                logger.error(f"[Protection] qpdf failed (exit {returncode}): {message}")
                raise ProtectionError(f"qpdf failed with exit code {returncode}", returncode=returncode)
            if returncode == 3:
                logger.warning(f"[Protection] qpdf finished with warnings: {message}")

            try:
                async with aiofiles.open(output_path, "rb") as f:
                    protected = await f.read()
            except FileNotFoundError as e:
                raise ProtectionError("qpdf produced no output file", returncode=returncode) from e
            except OSError as e:
                logger.error(f"[Protection] Could not read qpdf output {output_path}: {e}")
                raise ProtectionError(f"Could not read qpdf output: {e.strerror or e}", returncode=returncode) from e

        if not protected:
            raise ProtectionError("qpdf produced an empty output file", returncode=returncode)
        return protected


# ============================================
# Stage
# ============================================

@dataclass(frozen=True)
class ProtectionResult:
    content: bytes
    state: ProtectionState
    secured: bool


class ProtectionStage:
    """Flatten then protect; one instance per generation"""

    def __init__(
        self,
        backend: ProtectionBackend,
        password_factory: Callable[[], str] = generate_owner_password,
    ):
        self.backend = backend
        self.password_factory = password_factory
        self.state = ProtectionState.UNPROTECTED

    async def run(self, content: bytes) -> ProtectionResult:
        self.state = ProtectionState.UNPROTECTED

        loop = asyncio.get_event_loop()
        flattened = await loop.run_in_executor(None, flatten_form_fields, content)
        self.state = ProtectionState.FLATTENED
        logger.log_generation_event("protection", "flattened", size_bytes=len(flattened))

        protected = await self.backend.protect(flattened, self.password_factory())
        if self.backend.secures:
            self.state = ProtectionState.ENCRYPTED
            logger.log_generation_event("protection", "encrypted", size_bytes=len(protected))

        return ProtectionResult(content=protected, state=self.state, secured=self.backend.secures)


def build_protection_backend(
    enabled: bool,
    binary: str = "qpdf",
    lib_dir: str = "",
    timeout_seconds: float = 30.0,
    temp_dir: str = "",
    key_length: int = 256,
) -> ProtectionBackend:
    if not enabled:
        return NoopProtectionBackend()
    return QpdfProtectionBackend(binary, lib_dir, timeout_seconds, temp_dir, key_length)

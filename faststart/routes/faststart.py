import logging
import tempfile
import uuid
from pathlib import Path

import aiofiles
import aiofiles.os
from fastapi import APIRouter, File, HTTPException, Query, UploadFile
from fastapi.responses import FileResponse, Response
from starlette.background import BackgroundTask

from faststart.configs import settings
from faststart.processor import MovieFastStart
from faststart.schemas import FastStartReport
from faststart.utils.streams import FileOutputTarget, open_input

logger = logging.getLogger(__name__)

faststart_router = APIRouter()

WORK_DIR = Path(tempfile.gettempdir()) / "faststart"


async def _new_work_path(suffix: str) -> Path:
    await aiofiles.os.makedirs(WORK_DIR, exist_ok=True)
    return WORK_DIR / f"{uuid.uuid4().hex}{suffix}"


async def _spool_upload(file: UploadFile) -> Path:
    """Copy the upload to disk so the rewrite reads it through aiofiles."""
    path = await _new_work_path(".upload")
    async with aiofiles.open(path, "wb") as f:
        while True:
            chunk = await file.read(settings.chunk_size)
            if not chunk:
                break
            await f.write(chunk)
    return path


async def _remove_files(*paths: Path) -> None:
    for path in paths:
        try:
            await aiofiles.os.remove(path)
        except FileNotFoundError:
            pass
        except OSError as e:
            logger.error(f"Error removing temporary file {path}: {e}")


@faststart_router.post("/check", summary="Check whether an MP4 needs a fast-start rewrite", response_model=FastStartReport)
async def check_faststart(
    file: UploadFile = File(..., description="The MP4 file to analyze."),
    keep_free: bool = Query(False, description="Do not report free atoms in files whose moov is already in front."),
):
    fast_start = MovieFastStart(task_name=file.filename or "", remove_free_atoms=False if keep_free else None)
    input_path = await _spool_upload(file)
    try:
        async with open_input(input_path) as stream:
            needs_patching = await fast_start.check(stream)
    finally:
        await _remove_files(input_path)
    return fast_start.report(needs_patching, file.filename)


@faststart_router.post("/process", summary="Rewrite an MP4 with moov in front of the media data")
async def process_faststart(
    file: UploadFile = File(..., description="The MP4 file to rewrite."),
    keep_free: bool = Query(False, description="Leave files whose moov is already in front untouched."),
):
    """
    Return the rewritten file, 204 when no rewrite is needed, 422 for files
    without ftyp/moov/mdat and 500 when the rewrite failed.
    """
    fast_start = MovieFastStart(task_name=file.filename or "", remove_free_atoms=False if keep_free else None)
    input_path = await _spool_upload(file)
    output_path = input_path.with_suffix(".mp4")
    try:
        async with open_input(input_path) as stream:
            converted = await fast_start.process(stream, FileOutputTarget(output_path))
    finally:
        await _remove_files(input_path)

    if converted:
        return FileResponse(
            output_path,
            media_type="video/mp4",
            filename=file.filename or "faststart.mp4",
            headers={"X-Faststart-Output-Length": str(fast_start.output_length)},
            background=BackgroundTask(_remove_files, output_path),
        )

    await _remove_files(output_path)
    if fast_start.status.unsupported:
        raise HTTPException(status_code=422, detail="Unsupported file: ftyp, moov or mdat is missing")
    if fast_start.last_exception is not None:
        raise HTTPException(status_code=500, detail=f"Fast start failed: {fast_start.last_exception}")
    return Response(status_code=204)

from pathlib import Path
import aiofiles
import uuid

async def save_upload_bytes(content: bytes, user_id: int, upload_dir: str) -> Path:
    """
    Saves uploaded PDF bytes to a user-specific directory.
    """
    # Unique filename so repeated uploads of the same document never collide
    user_dir = Path(upload_dir) / str(user_id)
    user_dir.mkdir(parents=True, exist_ok=True)

    file_path = user_dir / f"{uuid.uuid4()}.pdf"

    async with aiofiles.open(file_path, "wb") as out_file:
        await out_file.write(content)

    return file_path

"""
Administration tasks.

Run with invoke from the project root, for example::

    invoke bootstrap-users
    invoke batch-upload --directory ./shots --collection-id <id> --owner alice
    invoke remove-user --name alice
"""

import json
import os

import structlog
from dotenv import load_dotenv
from invoke import Context, task

from photofolio.backend import create_backend
from photofolio.errors import PhotoFolioError
from photofolio.logging_config import configure_structured_logging
from photofolio.services.cascade import CascadeDeleter
from photofolio.services.gallery import GalleryRepository
from photofolio.services.image_processor import ImageProcessor
from photofolio.services.storage import build_object_name
from photofolio.services.title_generator import TitleGenerator, title_from_filename
from photofolio.services.users import UserDirectory

logger = structlog.get_logger()

SUPPORTED_EXTENSIONS = {".jpg", ".jpeg", ".png", ".gif", ".webp"}


def load_environment(env_file: str) -> None:
    if os.path.exists(env_file):
        load_dotenv(dotenv_path=env_file)
        logger.info("environment_loaded", env_file=env_file)
    else:
        logger.warning("environment_file_not_found", env_file=env_file)
    configure_structured_logging()


def find_images(directory: str, recursive: bool = False) -> list[str]:
    image_files = []
    if recursive:
        for root, _, files in os.walk(directory):
            for name in sorted(files):
                if os.path.splitext(name)[1].lower() in SUPPORTED_EXTENSIONS:
                    image_files.append(os.path.join(root, name))
    else:
        for name in sorted(os.listdir(directory)):
            path = os.path.join(directory, name)
            if os.path.isfile(path) and os.path.splitext(name)[1].lower() in SUPPORTED_EXTENSIONS:
                image_files.append(path)
    return image_files


@task
def bootstrap_users(c: Context, env_file: str = ".env"):
    """Create the default accounts when the user directory is empty."""
    load_environment(env_file)
    backend = create_backend()
    try:
        created = UserDirectory(backend.require_documents()).bootstrap_default_users()
    finally:
        backend.close()
    print(f"Created {created} user(s).")


@task
def batch_upload(
    c: Context,
    directory: str,
    collection_id: str,
    owner: str,
    auto_title: bool = False,
    recursive: bool = False,
    dry_run: bool = False,
    env_file: str = ".env",
):
    """
    Upload images from a local directory into a collection.

    Args:
        c (Context): Invoke context.
        directory (str): Directory containing images.
        collection_id (str): Target collection.
        owner (str): Owning user name, used in object names.
        auto_title (bool): Ask the title model for a title; falls back to the filename.
        recursive (bool): Search subdirectories too.
        dry_run (bool): List the files without uploading.
        env_file (str): Environment file to load.
    """
    load_environment(env_file)

    if not os.path.isdir(directory):
        logger.error("directory_not_found", directory=directory)
        return

    image_files = find_images(directory, recursive)
    if not image_files:
        logger.warning("no_images_found", directory=directory)
        return

    if dry_run:
        print("\n--- Dry Run Mode: Files to be processed ---")
        for file_path in image_files:
            print(f"- {file_path}")
        print("--- End of Dry Run ---")
        return

    successful_uploads = 0
    failed_uploads = 0

    backend = create_backend()
    try:
        if backend.require_documents().get_collection(collection_id) is None:
            logger.error("collection_not_found", collection_id=collection_id)
            return

        storage = backend.require_storage()
        gallery = GalleryRepository(backend)
        processor = ImageProcessor()
        titles = TitleGenerator(image_processor=processor) if auto_title else None

        for file_path in image_files:
            filename = os.path.basename(file_path)
            try:
                with open(file_path, "rb") as f:
                    file_data = f.read()

                processor.validate_file_size(file_data, filename)
                content_type = processor.detect_content_type(file_data, filename)
                url = storage.put(build_object_name(owner, filename), file_data, content_type)
                title = titles.suggest_title(file_data, filename) if titles else title_from_filename(filename)

                result = gallery.add_photos(collection_id, [{"src": url, "title": title}])[0]
                if not result["success"]:
                    # No document references the blob
                    storage.delete_many([url])
                    raise PhotoFolioError(result["error"])

                logger.info("upload_successful", filename=filename, photo_id=result["photo_id"])
                successful_uploads += 1

            except (OSError, PhotoFolioError) as e:
                logger.error("upload_failed", filename=filename, error=str(e))
                failed_uploads += 1
    finally:
        backend.close()

    logger.info("batch_upload_finished", successful=successful_uploads, failed=failed_uploads, total=len(image_files))
    print(f"\nBatch upload complete. Successful: {successful_uploads}, Failed: {failed_uploads}")


@task
def remove_user(c: Context, name: str, env_file: str = ".env"):
    """Delete a user with all collections, photos and files."""
    load_environment(env_file)
    backend = create_backend()
    try:
        report = CascadeDeleter(backend).delete_user(name)
    finally:
        backend.close()
    print(json.dumps(report.to_dict(), indent=2))

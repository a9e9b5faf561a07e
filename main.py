# Cloud Functions entry point when deploying from the repository root:
#   gcloud functions deploy photo-upload --gen2 --runtime=python312 --trigger-http --entry-point=upload
from cloud_function.photo_upload.main import upload  # noqa: F401

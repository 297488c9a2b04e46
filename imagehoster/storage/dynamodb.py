import boto3
from typing import Optional, Dict, Any, List
from boto3.dynamodb.conditions import Attr, Key
from botocore.exceptions import ClientError
from imagehoster.settings import settings
import logging

log = logging.getLogger(__name__)

THROUGHPUT = {"ReadCapacityUnits": 5, "WriteCapacityUnits": 5}

# Refer here: https://boto3.amazonaws.com/v1/documentation/api/latest/reference/services/dynamodb/client/create_table.html
TABLE_DEFINITIONS = {
    "images": {
        "KeySchema": [{"AttributeName": "image_id", "KeyType": "HASH"}],
        "AttributeDefinitions": [
            {"AttributeName": "image_id", "AttributeType": "S"},
            {"AttributeName": "user_id", "AttributeType": "S"},
        ],
        "GlobalSecondaryIndexes": [
            {
                "IndexName": "UserIndex",
                "KeySchema": [{"AttributeName": "user_id", "KeyType": "HASH"}],
                "Projection": {"ProjectionType": "ALL"},
                "ProvisionedThroughput": THROUGHPUT,
            }
        ],
    },
    # Tag names are the hash key, so the table itself enforces unique names.
    "tags": {
        "KeySchema": [{"AttributeName": "name", "KeyType": "HASH"}],
        "AttributeDefinitions": [{"AttributeName": "name", "AttributeType": "S"}],
    },
    "comments": {
        "KeySchema": [{"AttributeName": "comment_id", "KeyType": "HASH"}],
        "AttributeDefinitions": [
            {"AttributeName": "comment_id", "AttributeType": "S"},
            {"AttributeName": "image_id", "AttributeType": "S"},
        ],
        "GlobalSecondaryIndexes": [
            {
                "IndexName": "ImageIndex",
                "KeySchema": [{"AttributeName": "image_id", "KeyType": "HASH"}],
                "Projection": {"ProjectionType": "ALL"},
                "ProvisionedThroughput": THROUGHPUT,
            }
        ],
    },
}

def is_conditional_check_failure(e: ClientError) -> bool:
    return e.response.get("Error", {}).get("Code") == "ConditionalCheckFailedException"

# -------------------------
# DynamoDB Service
# -------------------------
class DynamoDBService:
    def __init__(self):
        session = boto3.session.Session(region_name=settings.aws_region)
        kwargs = {
            "aws_access_key_id": settings.aws_access_key_id,
            "aws_secret_access_key": settings.aws_secret_access_key,
        }
        if settings.aws_endpoint_url:
            kwargs["endpoint_url"] = settings.aws_endpoint_url

        self.resource = session.resource("dynamodb", **kwargs)
        log.info("Initialized DynamoDB resource")

        self.table_names = {
            "images": settings.images_table,
            "tags": settings.tags_table,
            "comments": settings.comments_table,
        }
        # Ensure tables exist at initialization
        self.ensure_tables()

    def ensure_tables(self):
        for kind, table_name in self.table_names.items():
            try:
                table = self.resource.Table(table_name)
                table.load()
                log.debug("Table %s already exists", table_name)
            except ClientError:
                table = self.resource.create_table(
                    TableName=table_name,
                    ProvisionedThroughput=THROUGHPUT,
                    **TABLE_DEFINITIONS[kind],
                )
                table.wait_until_exists()
                log.info("Created table %s", table_name)

    def table(self, kind: str):
        return self.resource.Table(self.table_names[kind])

    # -------------------------
    # Tags
    # -------------------------
    def get_tag(self, name: str) -> Optional[Dict[str, Any]]:
        resp = self.table("tags").get_item(Key={"name": name})
        return resp.get("Item")

    def create_tag(self, item: Dict[str, Any]) -> Dict[str, Any]:
        """
            Inserts the tag unless one with the same name exists.
            Returns whichever record is stored for that name afterwards.
        """
        try:
            self.table("tags").put_item(
                Item=item,
                ConditionExpression="attribute_not_exists(#name)",
                ExpressionAttributeNames={"#name": "name"},
            )
            log.debug("Inserted tag %s", item["name"])
            return item
        except ClientError as e:
            if not is_conditional_check_failure(e):
                raise
            log.debug("Tag %s already exists", item["name"])
            return self.get_tag(item["name"])

    # -------------------------
    # Images
    # -------------------------
    def get_image(self, image_id: str) -> Optional[Dict[str, Any]]:
        resp = self.table("images").get_item(Key={"image_id": image_id})
        return resp.get("Item")

    def put_image(self, item: Dict[str, Any]):
        self.table("images").put_item(
            Item=item,
            ConditionExpression="attribute_not_exists(image_id)",
        )
        log.debug("Inserted image %s", item.get("image_id"))

    def replace_image(self, item: Dict[str, Any]):
        """Raises ClientError(ConditionalCheckFailedException) if the image is gone."""
        self.table("images").put_item(
            Item=item,
            ConditionExpression="attribute_exists(image_id)",
        )
        log.debug("Replaced image %s", item.get("image_id"))

    def delete_image(self, image_id: str):
        """Comments go first; a failure part way leaves the image in place."""
        comments = self.query_comments(image_id)
        with self.table("comments").batch_writer() as batch:
            for comment in comments:
                batch.delete_item(Key={"comment_id": comment["comment_id"]})
        log.debug("Deleted %d comments of image %s", len(comments), image_id)

        self.table("images").delete_item(Key={"image_id": image_id})
        log.debug("Deleted image %s", image_id)

    def scan_images(
        self,
        user_id: Optional[str] = None,
        tag: Optional[str] = None,
        limit: int = 50,
        exclusive_start_key: Optional[Dict[str, str]] = None,
    ) -> Dict[str, Any]:
        scan_kwargs = {"Limit": limit}
        if exclusive_start_key:
            scan_kwargs["ExclusiveStartKey"] = exclusive_start_key

        filters = None
        if user_id:
            filters = Attr("user_id").eq(user_id)
        if tag:
            cond = Attr("tags").contains(tag)
            filters = cond if filters is None else filters & cond
        if filters is not None:
            scan_kwargs["FilterExpression"] = filters
        return self.table("images").scan(**scan_kwargs)

    # -------------------------
    # Comments
    # -------------------------
    def put_comment(self, item: Dict[str, Any]):
        self.table("comments").put_item(Item=item)
        log.debug("Inserted comment %s", item.get("comment_id"))

    def query_comments(self, image_id: str) -> List[Dict[str, Any]]:
        table = self.table("comments")
        query_kwargs = {
            "IndexName": "ImageIndex",
            "KeyConditionExpression": Key("image_id").eq(image_id),
        }
        items = []
        while True:
            resp = table.query(**query_kwargs)
            items.extend(resp.get("Items", []))
            if "LastEvaluatedKey" not in resp:
                return items
            query_kwargs["ExclusiveStartKey"] = resp["LastEvaluatedKey"]

    def close(self):
        log.info("Closed DynamoDB resource")

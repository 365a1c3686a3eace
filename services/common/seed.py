"""デモ用の初期データ（インメモリストアと空の DB テーブルに投入する）"""

SEED_USERS = [
    {"id": "1", "name": "Alice", "email": "alice@example.com"},
    {"id": "2", "name": "Bob", "email": "bob@example.com"},
    {"id": "3", "name": "Charlie", "email": "charlie@example.com"},
]

SEED_INVENTORY = [
    {"id": "ITEM001", "name": "Docker Handbook", "quantity": 50, "price": 29.99},
    {"id": "ITEM002", "name": "Container Stickers", "quantity": 200, "price": 4.99},
    {"id": "ITEM003", "name": "Kubernetes Mug", "quantity": 25, "price": 14.99},
    {"id": "ITEM004", "name": "DevOps T-Shirt", "quantity": 75, "price": 24.99},
]


import os, json
import httpx

BASE = os.getenv("BASE_URL", "http://127.0.0.1:3000")
TOKEN = os.getenv("SESSION_TOKEN")  # Clerk session JWT copied from the browser

def main():
    products = httpx.get(f"{BASE}/api/products").json()
    print("[frontend] products:", json.dumps(products, indent=2))

    if not TOKEN:
        print("[frontend] SESSION_TOKEN not set, stopping before authenticated calls")
        return
    headers = {"Authorization": f"Bearer {TOKEN}"}

    me = httpx.get(f"{BASE}/test-auth", headers=headers)
    print("[frontend] test-auth:", me.status_code, me.text)

    payload = {
        "products": [products[0]["id"]],
        "customerMetadata": {"source": "simulate_frontend"},
    }
    print("[frontend] create checkout...")
    res = httpx.post(f"{BASE}/create-checkout", json=payload, headers=headers)
    print("[frontend] checkout:", res.status_code, json.dumps(res.json(), indent=2))

    portal = httpx.get(f"{BASE}/api/create-portal-session", headers=headers)
    print("[frontend] portal:", portal.status_code, portal.text)

if __name__ == "__main__":
    main()

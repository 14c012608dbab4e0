import time, random, os
import requests

API = os.getenv("API", "http://127.0.0.1:3030")
INTERVAL = float(os.getenv("INTERVAL", "1"))

def main():
    seq = 0
    while True:
        seq += 1
        event = {"seq": seq, "sensor": "temp-1", "value": round(22.0 + random.uniform(-1.0, 1.0), 3)}
        r = requests.post(f"{API}/webhook", json=event)
        print(r.status_code, r.text)
        time.sleep(INTERVAL)

if __name__ == "__main__":
    main()

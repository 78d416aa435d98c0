# golden/eval_golden.py
import argparse, json, os, sys, requests

def sources_match(sources, expected):
    def norm(s): return (s or "").strip().lower()
    wanted = { norm(e) for e in expected if e }
    if not wanted:
        return bool(sources)
    for s in sources:
        title = norm(s.get("title", ""))
        url   = norm(s.get("url", ""))
        if any(w in title or w in url for w in wanted):
            return True
    return False

def main():
    p = argparse.ArgumentParser()
    p.add_argument("gold_path", nargs="?", default=os.path.join(os.path.dirname(__file__), "golden_set.jsonl"))
    p.add_argument("--api", default=os.environ.get("SEARCH_API", "http://127.0.0.1:8000"))
    p.add_argument("--timeout", type=float, default=float(os.environ.get("EVAL_TIMEOUT", "60")))
    p.add_argument("-v", "--verbose", action="store_true")
    args = p.parse_args()
    base = args.api.rstrip("/")

    # sanity: ping health
    try:
        h = requests.get(f"{base}/health", timeout=5)
        h.raise_for_status()
        print(f"[ok] API health @ {base}/health: {h.json()}")
    except Exception as e:
        print(f"[err] Could not reach API health @ {base}/health\n{e}")
        return 2

    total = matched = hassrc = fu_total = fu_ok = limited = 0
    with open(args.gold_path, "r") as f:
        for line in f:
            line = line.strip()
            if not line:
                continue
            q = json.loads(line)
            question = q["question"]
            resp = requests.get(f"{base}/api/search", params={"q": question}, timeout=args.timeout)
            if resp.status_code == 429:
                limited += 1
                print(f"[warn] rate limited on {question!r}; retry-after={resp.headers.get('Retry-After')}")
                continue
            resp.raise_for_status()
            data = resp.json()
            sources = data.get("sources", []) or []

            if args.verbose:
                print(f"\n[q] {question}  session={data.get('sessionId')}")
                if not sources:
                    print("  [no sources]")
                else:
                    for i, s in enumerate(sources, 1):
                        print(f"  [{i}] title={s.get('title')!r} url={s.get('url')!r}")

            if sources_match(sources, q.get("expect_sources", [])):
                matched += 1
            if sources:
                hassrc += 1
            total += 1

            follow_up = q.get("follow_up")
            if follow_up:
                fu_total += 1
                r2 = requests.post(f"{base}/api/follow-up",
                                   json={"sessionId": data.get("sessionId"), "query": follow_up},
                                   timeout=args.timeout)
                if r2.status_code == 200 and r2.json().get("summary"):
                    fu_ok += 1
                elif args.verbose:
                    print(f"  [follow-up] {r2.status_code}: {r2.text[:200]}")

    if total == 0:
        print("[warn] No questions answered from golden set.")
        return 4

    print(f"\nSources matched: {matched}/{total} = {matched/total:.1%}")
    print(f"Sources present: {hassrc}/{total} = {hassrc/total:.1%}")
    if fu_total:
        print(f"Follow-ups ok: {fu_ok}/{fu_total} = {fu_ok/fu_total:.1%}")
    if limited:
        print(f"Rate limited: {limited}")
    return 0

if __name__ == "__main__":
    sys.exit(main())

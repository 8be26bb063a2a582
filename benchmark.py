import argparse
import os
import platform
import time

# Mock class for testing without a real model
class MockEngine:
    def __init__(self, verbose: bool = True):
        if verbose:
            print("[Mock] Initialized MockEngine")

    def init(self, model_path: str, thread_count: int) -> bool:
        time.sleep(0.2)  # simulated load
        return True

    def generate(self, prompt: str, max_tokens: int = 128) -> str:
        # ~20 tokens/sec after a 500ms prefill
        time.sleep(0.5 + 0.05 * max_tokens)
        return " ".join(f"token_{i}" for i in range(max_tokens))

    def release(self) -> None:
        pass


def get_system_info(threads):
    return {
        "OS": f"{platform.system()} {platform.release()}",
        "CPU": platform.processor() or platform.machine(),
        "Cores": f"{threads.total_cores} logical / {threads.high_performance_cores} big",
        "Threads": str(threads.threads),
    }


def run_benchmark(model_path: str, n_generate: int, use_mock: bool, prompt: str):
    from coderbridge import is_error_output, recommended_thread_config

    print("=" * 60)
    print("coderbridge Benchmark Tool v1.0")
    print("=" * 60)

    # 1. System Info
    threads = recommended_thread_config()
    print("\n[System Information]")
    for k, v in get_system_info(threads).items():
        print(f"  {k:<12}: {v}")

    # 2. Initialize Engine
    print("\n[Initialization]")
    print(f"  Model Path  : {model_path}")
    print(f"  Mode        : {'MOCK' if use_mock else 'llama.cpp'}")

    if use_mock:
        engine = MockEngine()
    else:
        from coderbridge import Engine, EngineConfig

        engine = Engine(EngineConfig(verbose=True))

    start_init = time.time()
    if not engine.init(model_path, threads.threads):
        print("Error initializing engine (see log output).")
        return
    print(f"  Init Time   : {time.time() - start_init:.4f}s")

    # 3. Running Benchmark
    print("\n[Benchmark Scenario]")
    print(f"  Prompt Len  : ~{len(prompt.split())} words")
    print(f"  Max Tokens  : {n_generate}")
    print("  Generating...")

    start_time = time.time()
    output = engine.generate(prompt, n_generate)
    total_time = time.time() - start_time
    engine.release()

    if is_error_output(output):
        print(f"\nBenchmark failed: {output}")
        return

    # Whitespace-separated words are a rough stand-in for tokens.
    words = len(output.split())
    wps = words / total_time if total_time > 0 else 0.0

    print(f"\n\n{'=' * 60}")
    print("BENCHMARK RESULTS")
    print(f"{'=' * 60}")
    print(f"  Output Words: {words}")
    print(f"  Output Chars: {len(output)}")
    print(f"  Total Time  : {total_time:.4f} s  (prefill + decode)")
    print(f"  Words/sec   : {wps:.2f}")
    print(f"{'=' * 60}")

    if wps < 1.0:
        print("\nWARNING: Performance is extremely low. Check thread count and GPU offload.")


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description="coderbridge Benchmark Script")
    parser.add_argument("--model", type=str, default="model.gguf", help="Path to GGUF model file")
    parser.add_argument("--tokens", type=int, default=128, help="Maximum tokens to generate")
    parser.add_argument("--prompt", type=str, default="Show a card with today's weather in Pune.", help="Prompt text")
    parser.add_argument("--mock", action="store_true", help="Run with mock engine (no model required)")

    args = parser.parse_args()

    if not os.path.exists(args.model) and not args.mock:
        print(f"Warning: Model file '{args.model}' not found.")
        print("Running in MOCK mode for demonstration (pass valid path to test real engine).")
        args.mock = True

    run_benchmark(args.model, args.tokens, args.mock, args.prompt)

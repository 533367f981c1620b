"""
Benchmark Suite

Sub-step throughput of the wind tunnel backends:
NumPy reference, Numba parallel CPU, and Numba CUDA.
"""

import time
import sys
import os

sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..'))

from lbm_tunnel.parameters import Parameters
from lbm_tunnel.solver import WindTunnel
from lbm_tunnel.boundary import create_cylinder_mask
from lbm_tunnel.kernels.gpu import check_cuda_available

CUDA_AVAILABLE = check_cuda_available()


def benchmark_backend(backend, nx, ny, tau, num_steps, warmup_steps=20):
    """
    Benchmark one backend on a cylinder flow.

    Returns
    -------
    mlups : float
        Million Lattice Updates Per Second
    """
    params = Parameters(nx, ny, tau=tau, inflow=0.1)
    tunnel = WindTunnel(params, backend=backend)
    tunnel.replace_barriers(create_cylinder_mask(nx, ny, nx // 5, ny // 2, ny // 10))

    for _ in range(warmup_steps):
        tunnel.substep()
    if backend == 'cuda':
        tunnel._gpu.synchronize()

    start = time.perf_counter()
    for _ in range(num_steps):
        tunnel.substep()
    if backend == 'cuda':
        tunnel._gpu.synchronize()
    elapsed = time.perf_counter() - start

    return num_steps * nx * ny / elapsed / 1e6


def run_full_benchmark(grid_sizes=None, tau=0.6, num_steps=200):
    """Run all available backends over a set of grid sizes."""
    if grid_sizes is None:
        grid_sizes = [
            (128, 64),
            (256, 128),
            (512, 256),
            (1024, 512),
        ]

    backends = ['numpy', 'numba'] + (['cuda'] if CUDA_AVAILABLE else [])

    print("=" * 60)
    print("Wind Tunnel Benchmark")
    print("=" * 60)
    print(f"Tau: {tau}")
    print(f"Steps: {num_steps}")
    print(f"CUDA Available: {CUDA_AVAILABLE}")
    print()

    results = {}
    for backend in backends:
        print(f"Benchmarking {backend}...")
        print("-" * 40)
        results[backend] = {}
        for nx, ny in grid_sizes:
            mlups = benchmark_backend(backend, nx, ny, tau, num_steps)
            results[backend][(nx, ny)] = mlups
            print(f"  {nx:4d} x {ny:4d}: {mlups:8.2f} MLUPS")
        print()

    print("=" * 60)
    print(f"{'Grid':<12}" + "".join(f"{b:>12}" for b in backends))
    print("-" * 60)
    for nx, ny in grid_sizes:
        row = "".join(f"{results[b][(nx, ny)]:>12.1f}" for b in backends)
        print(f"{nx:4d}x{ny:<4d}    {row}")
    print("=" * 60)

    return results


def compute_memory_bandwidth(mlups, bytes_per_site=288):
    """
    Effective memory bandwidth in GB/s.

    Collision and streaming each read and write 9 doubles per site.
    """
    return mlups * bytes_per_site / 1000


if __name__ == "__main__":
    results = run_full_benchmark()
    if 'cuda' in results:
        best = max(results['cuda'].values())
        print(f"\nPeak CUDA: {best:.1f} MLUPS, "
              f"{compute_memory_bandwidth(best):.1f} GB/s effective")
